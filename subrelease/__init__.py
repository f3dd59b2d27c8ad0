"""Release automation for a parent repository and its submodules."""
