"""Bundled reference data: plan templates and permit checklists."""
