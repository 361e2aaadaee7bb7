"""editorbridge - terminal and language server bridge for a web code editor"""

__version__ = "0.1.0"
