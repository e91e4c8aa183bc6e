""" Tool to check the dialog corpus before it ships.

Exits 0 if the corpus is clean and 1 if there are errors, so it can gate a
build.
"""

import sys
import argparse
import contextlib
import logging
from typing import Optional, Sequence

from terminus import config, dialog, drafts, util
from terminus.errors import ContentIntegrityError
from terminus.validator import DiagnosticKind, GraphValidator, viz

def run(args:argparse.Namespace, logger:logging.Logger) -> int:
    """ Loads and validates the corpus, writes the requested output and
    returns the exit code. """

    include_drafts = args.include_drafts if args.include_drafts is not None else config.include_drafts()
    strict = args.strict if args.strict is not None else config.Settings.validator.STRICT

    try:
        graphs = drafts.filter_graphs(dialog.load_dialogs(args.graphs), include_drafts)
    except ContentIntegrityError as e:
        logger.error(f'could not load graphs ({e.case.name}): {e}')
        return 1
    report = GraphValidator().validate(graphs, progress=args.progress)

    if args.dot:
        graph = next((g for g in graphs if g.graph_id == args.dot), None)
        if graph is None:
            logger.error(f'no graph named "{args.dot}"')
            return 2
        orphans = [d.node_id for d in report.diagnostics if d.graph_id == graph.graph_id and d.kind == DiagnosticKind.ORPHAN_NODE]
        print(viz(graph, orphans).source)
    elif args.json:
        print(report.to_json())
    else:
        print(report.summary())

    return report.exit_code(strict)

def main(argv:Optional[Sequence[str]]=None) -> None:
    exit_code = 0
    with contextlib.ExitStack() as context_stack:

        parser = argparse.ArgumentParser(description="validate dialog graphs")
        parser.add_argument("-g", "--graphs", type=str, default=None,
                help="directory of graph toml files. default: the bundled graphs")
        parser.add_argument("-c", "--config", type=str, default=None,
                help="config toml to merge over the built-in config")
        parser.add_argument("--include-drafts", action="store_true", default=None,
                help="validate quarantined draft nodes too, overriding $" + config.DRAFT_CONTENT_ENV)
        parser.add_argument("--strict", action="store_true", default=None,
                help="fail on warnings as well as errors")
        parser.add_argument("--json", action="store_true",
                help="write the report as json to stdout")
        parser.add_argument("--dot", type=str, default=None, metavar="GRAPH",
                help="write graphviz DOT source for GRAPH to stdout instead of a report")
        parser.add_argument("--progress", action="store_true",
                help="show a progress bar while checking graphs")
        parser.add_argument("-v", "--verbose", action="store_true")
        parser.add_argument("--pdb", action="store_true")

        args = parser.parse_args(argv)

        logging.basicConfig(stream=sys.stderr, level=logging.DEBUG if args.verbose else logging.INFO)
        # unsatisfiable gate warnings show up in the log
        logging.captureWarnings(True)
        logger = logging.getLogger(__name__)

        if args.pdb:
            context_stack.enter_context(util.PDBManager())

        if args.config:
            with open(args.config, "rt") as f:
                config.load_config(f)

        exit_code = run(args, logger)

    sys.exit(exit_code)

if __name__ == "__main__":
    main()
