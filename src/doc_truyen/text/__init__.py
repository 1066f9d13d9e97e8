"""Text processing: numeral parsing, chapter segmentation and sentence tokenizing.

Submodules are imported directly (``doc_truyen.text.segmenter``) because the
models module depends on ``doc_truyen.text.numerals``.
"""
