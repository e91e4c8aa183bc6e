""" Terminus dialogue graph runtime

Drives branching conversations with a cast of characters. Each character's
conversation is a graph of dialog nodes joined by player choices. Content and
choices are gated by the player's accumulated state: trust with each
character, behavioral pattern and skill tallies, and flags.

At play time a DialogManager walks one node at a time: it applies a node's
entry effects, selects which variant of the node's text to show, partitions
its choices into visible, disabled and hidden, and on selection applies the
choice's effects and hands back the next node id. Node ids are one flat
namespace across every graph, indexed by the GraphRegistry, so a choice in one
character's graph can lead into another's.

Offline, GraphValidator checks a whole corpus at once for broken references,
duplicate ids, unreachable nodes and gates nothing can open, and the
terminus-validate command turns that into a build gate.
"""
