from .aggregate_procedure import SqliteAggregateProcedure

__all__ = ["SqliteAggregateProcedure"]
