"""In-page annotation engine: highlights, notes and ink over a saved page.

The engine never touches a real DOM. It drives a DocumentHost (see host.py)
supplied by whatever embeds it.
"""
