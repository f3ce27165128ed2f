"""
rulewizard - question-driven Maven build configuration.

Asks a catalogue's gated questions, plans add-if-absent changes to a
pom.xml, asks before touching anything that already exists, and writes
the result without reformatting the rest of the document.
"""

__version__ = "0.1.0"
