"""Command line tool for deploying testnets."""
