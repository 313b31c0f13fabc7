"""
The `python -m oss_audit` entrypoint.
"""

if __name__ == "__main__":  # pragma: no cover
    from oss_audit._cli import audit

    audit()
