"""
Script: release_tools package
What: Holds the Python release helpers that replaced the image publish shell script.
Doing: Groups CLI entrypoints, the image table, and shared utility code in one importable package.
Why: Keeps release logic readable and testable instead of living in one shell file.
Goal: Provide a clear, maintainable home for backend image build and publish logic.
"""
