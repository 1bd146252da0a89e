"""
Workflow aggregates (Submissions and oversight Requests) and their resource links.
"""
