class WeatherwizError(Exception):
    """Base exception for all weatherwiz errors"""
    pass

class ConfigError(WeatherwizError):
    """Invalid or inconsistent global.json / widget config"""
    pass

class IngestionError(WeatherwizError):
    """
    Source dataset could not be loaded into the tabular store.
    Fatal for the session: raised before any client is created.
    """
    pass

class QueryBuildError(WeatherwizError):
    """A client failed to build its query for the current generation"""

    def __init__(self, client_id: str, message: str):
        self.client_id = client_id
        super().__init__(f"Client '{client_id}': {message}")

class QueryExecutionError(WeatherwizError):
    """
    The tabular store rejected or failed a query
    unknown table/column, pandas failure, etc
    """
    pass

class QueryTimeoutError(QueryExecutionError):
    """A query ran longer than the configured bound"""
    pass
