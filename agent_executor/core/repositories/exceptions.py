class DuplicatePositionError(Exception):
    """
    Raised by PositionRepository.create when a position already exists for the
    same (deployment_id, signal_id). The store's unique index is the arbiter.
    """
    def __init__(self, deployment_id: str, signal_id: str):
        super().__init__(f"position already exists for deployment={deployment_id} signal={signal_id}")
        self.deployment_id = deployment_id
        self.signal_id = signal_id
