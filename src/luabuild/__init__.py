"""
luabuild: Lua Project Build Pipeline

Resolves a project's library graph, bundles each declared build with the
resolved library sources and writes one artifact per (build x target) pair.

PIPELINE:
---------
    project manifest
        -> library resolution (memoized, cycle checked)
        -> one bundle per build
        -> one artifact per target (raw or minified)
        -> optional autoconf sidecar via the Lua toolchain

The Lua toolchain is optional. Without it every artifact is still written,
only the metadata sidecars are skipped.
"""

__version__ = "0.1.0"
