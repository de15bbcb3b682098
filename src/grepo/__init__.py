"""grepo: search branches and commits across a set of local git repositories."""

__version__ = "0.2.0"
