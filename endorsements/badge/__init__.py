"""
SVG badge rendering.

Responsibilities:
- Size the badge from each entry's wrapped text before drawing anything.
- Draw avatars, names, handles, dates and quoted recommendation text.
- Escape every dynamic string placed into the document.
- Produce a small fixed-size error badge when rendering fails.
"""
