"""School gradebook: exam scoring, grade aggregation and question-bank tooling."""
