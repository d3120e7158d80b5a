"""
Prdtrack - Keep tracked work items in step with product requirement documents.

A CLI tool that:
1. Extracts features from a PRD and creates one work item per feature
2. Snapshots the PRD against every item it touches
3. Diffs later PRD revisions and filters out trivial edits
4. Plans and applies item updates, obsolescence notes and new items

Usage:
    prdtrack init               # Write a sample prdtrack.yml
    prdtrack create docs/prd.md # Fresh-create items from a PRD
    prdtrack update docs/prd.md # Incrementally sync items with a revised PRD
    prdtrack list               # List tracked items
    prdtrack show 12            # Show one item with its comments
    prdtrack diff 12 docs/prd.md
"""

__version__ = "0.1.0"
__author__ = "Prdtrack"
