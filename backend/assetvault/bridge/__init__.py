"""Bridge: watches a local export folder and uploads new files to the vault."""
