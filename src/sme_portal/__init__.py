"""SME Portal backend service.

This package discovers small businesses that sell only through social media,
generates a single-file website for each of them, assigns a (simulated)
deployment URL, and drafts a personalized outreach email, persisting every
artifact so that any stage can be safely re-run.
"""

__version__ = "0.1.0"
