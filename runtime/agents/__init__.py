"""
Agents used by the COMPAS Navigator runtime.

ConversationAgent runs one chat turn for a session:

- guards the objective stage against solution statements
- records the user message, asks the coaching model for a reply
- lets the StageProgressionEngine extract data and advance the stage
"""
