#!/usr/bin/env python3

from setuptools import setup


if __name__ == "__main__":
    setup(
        name="shadergraph",
        packages=[
            "shadergraph",
            "shadergraph.nodegraph",
            "shadergraph.editor",
        ],
        python_requires='>3.10.0',
        version="0.1.0",
        license="MIT",
        description="Shader node graph editor core: graph model, undo history, GLSL-style code generation",
        keywords=["shaders", "nodegraph", "editor"],
        classifiers=[],
        install_requires=[
            "numpy",
            "PyQt6>=6.4",
        ],
        extras_require={
            "test": [
                "pytest",
            ],
        },
        entry_points={
            "console_scripts": [
                "shadergraph=shadergraph.__main__:main",
            ],
        },
        zip_safe=False,
    )
