from .errors import (CorefError, ConfigurationError, CheckpointError,
                     InferenceCancelled, DataConsistencyError)
from .document import ClustererDoc, load_documents
from .clustering.clusterer import Clusterer

__version__ = '0.1.0'
