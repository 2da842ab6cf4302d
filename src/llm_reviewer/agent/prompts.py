"""Prompts for the review agent."""

DEFAULT_SYSTEM_PROMPT = """You are an expert code reviewer with access to repository analysis tools.
Gather evidence with the tools before drawing conclusions, cite file paths and
line numbers, and finish with a plain text review."""

FINAL_ROUND_REMINDER = """You have one tool call round left. Based on the information you have \
gathered so far, write your final review as plain text now instead of calling more tools."""

NO_CHANGES = "No changes detected (working tree is clean)."

NO_REFERENCES = "No references found."

FIND_REFERENCES_DESCRIPTION = """Find the references of the symbol at a given line and character \
position of a file. Positions are 1-based, as shown to humans."""

READ_FILE_DESCRIPTION = """Read the contents of a file. Use this to inspect the code itself."""

GET_DIFF_DESCRIPTION = """Get the current git diff of the working tree (git diff HEAD). \
Use this to see what changed before reviewing."""

FIND_SYMBOL_DESCRIPTION = """Find where a symbol (function, class or variable name) is defined: \
file path, line and character. When you want the references of a symbol but do not know its \
file or line, locate it with this tool first and then call find-references."""
