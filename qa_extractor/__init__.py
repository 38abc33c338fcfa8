"""Recruiting Q&A extraction pipeline.

Turns interview recordings, drilldown notes, assessment documents and
assignment links into classified question rows appended to a spreadsheet.
"""

__version__ = "2.0.0"
