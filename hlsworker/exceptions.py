class TranscodePipelineError(Exception):
    pass


class EncodeInvocationError(TranscodePipelineError):
    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.exit_code = exit_code


class PosterSourceMissing(TranscodePipelineError):
    pass


class ManifestMissing(TranscodePipelineError):
    pass


class ProbeFailure(TranscodePipelineError):
    pass


class StreamReadError(TranscodePipelineError):
    pass
