# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

from setuptools import find_packages, setup

setup(
    name="inferra",
    version="0.1.0",
    description="Python runtime binding for ONNX inference sessions",
    author="Wahyu Ardiansyah",
    license="Apache-2.0",
    python_requires=">=3.9",
    packages=find_packages(include=["inferra", "inferra.*"]),
    install_requires=[
        "numpy>=1.21",
        "onnxruntime>=1.14",
    ],
    extras_require={
        "test": ["pytest>=7.0", "onnx>=1.13", "hypothesis>=6.0"],
        "torch": ["torch>=2.0"],
    },
)
