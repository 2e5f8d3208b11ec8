"""Quiz engine — pure functions behind the quiz endpoints.

Learn: Nothing in here touches the database. The service layer loads
documents, hands plain values to these helpers and stores the result,
which keeps the interesting rules (intake merging, balanced question
selection, MCQ scoring) unit-testable without a session.
"""
