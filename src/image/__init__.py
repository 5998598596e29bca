"""Disk image conversion adapters.

This package defines the conversion capability consumed by the copier
and its qemu-img binding.
"""
