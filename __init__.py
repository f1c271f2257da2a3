"""
Refactoring Task Pipeline - findings in, approved source transforms out

Turns static-analysis findings about a Swift project into bounded, scored
refactoring tasks, routes each one through an approval policy and applies the
approved ones with deterministic text or syntax-tree transforms.

Features:
- Confidence-scored task generation with per-run limits
- Declarative approval policies with a JSON interchange format
- Lossless syntax-tree transforms alongside line-based ones
- Fail-fast transform pipeline with unified diffs
- Run audit records in PostgreSQL or JSON files
"""

__version__ = "1.0.0"
__author__ = "Refactoring Pipeline Team"
