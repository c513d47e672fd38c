"""
Text layout for badge entries.

Responsibilities:
- Break recommendation text into paragraphs and display lines.
- Greedily word-wrap long lines to a fixed character width.
- Count lines with the same algorithm so image sizing matches drawing.
"""
