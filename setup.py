import os
import os.path
import setuptools # type: ignore

root_path = os.path.dirname(__file__)

with open(os.path.join(root_path, "README.md"), "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="terminus",
    version="0.1.0",
    description="Terminus: a dialogue graph runtime and static validator for branching character narratives.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(where="src"),
    package_dir={'': 'src'},

    package_data={
        'terminus': ['py.typed'],
        'terminus.data': ['*.toml', 'graphs/*.toml'],
    },
    include_package_data=True,
    zip_safe=False,
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    install_requires=[
        "graphviz",
        "toml",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires='>=3.9',
    entry_points={
        'console_scripts': [
            'terminus-validate = terminus.validate_graphs:main',
        ],
    },
)
