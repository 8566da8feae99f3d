# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Inferra Execution Provider Package

Usage:
    import inferra.backends as ib

    print(ib.list_supported_backends())
    # [BackendInfo(name='cpu', bundled=True), BackendInfo(name='cuda', bundled=False)]
"""

from .registry import (
    BackendInfo,
    BackendRegistry,
    BackendSpec,
    get_registry,
    list_supported_backends,
)

__all__ = [
    "BackendInfo",
    "BackendRegistry",
    "BackendSpec",
    "get_registry",
    "list_supported_backends",
]
