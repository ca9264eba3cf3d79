"""
Export a Notion page, including its embedded child databases, to markdown files.
"""
__version__ = "0.1.0"
