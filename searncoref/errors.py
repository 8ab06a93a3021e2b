# Copyright 2017 Neural Networks and Deep Learning lab, MIPT
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


class CorefError(Exception):
    """Base class for all clusterer errors."""


class ConfigurationError(CorefError, ValueError):
    """Malformed clusterer options."""


class CheckpointError(CorefError, IOError):
    """Model or progress file could not be written or read.

    Attributes:
        path: file that failed
        phase: what the clusterer was doing, e.g. 'writing model'
    """

    def __init__(self, phase, path, cause=None):
        self.phase = phase
        self.path = path
        message = 'Error {} {}'.format(phase, path)
        if cause is not None:
            message = '{}: {}'.format(message, cause)
        super().__init__(message)


class InferenceCancelled(CorefError):
    """Raised when a cancel signal is seen while clustering a document."""

    def __init__(self, doc_id):
        self.doc_id = doc_id
        super().__init__('Clustering of document {} was cancelled'.format(doc_id))


class DataConsistencyError(CorefError, RuntimeError):
    """An internal invariant of the clustering state was violated."""
