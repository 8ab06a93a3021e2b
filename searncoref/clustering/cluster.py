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


from collections import namedtuple

import numpy as np

HASH_MASK = (1 << 64) - 1

# decision point: pair of clusters at a cursor position in a document
MergeKey = namedtuple('MergeKey', ['left_hash', 'right_hash', 'index', 'doc_id'])


def merge_key(c1, c2, index, doc_id):
    return MergeKey(c1.hash, c2.hash, index, doc_id)


class MentionHasher:
    """Random 64-bit hash per (document, mention), drawn once and reused for the lifetime of the hasher"""

    def __init__(self, seed=0):
        self.random = np.random.RandomState(seed)
        self.hashes = dict()

    def __call__(self, doc_id, mention):
        key = (doc_id, mention)
        mention_hash = self.hashes.get(key)
        if mention_hash is None:
            mention_hash = int.from_bytes(self.random.bytes(8), 'little')
            self.hashes[key] = mention_hash
        return mention_hash

    def __len__(self):
        return len(self.hashes)


class Cluster:
    """Set of coreferent mentions.

    The hash is the XOR of the mention hashes, so it depends only on which
    mentions are in the cluster and is updated in O(1) on merge.
    """

    __slots__ = ('mentions', 'hash')

    def __init__(self, mentions, cluster_hash):
        self.mentions = list(mentions)
        self.hash = cluster_hash

    @classmethod
    def new(cls, mention, mention_hash):
        return cls([mention], mention_hash)

    def copy(self):
        return Cluster(self.mentions, self.hash)

    def merge(self, other):
        self.mentions.extend(other.mentions)
        self.hash ^= other.hash

    def size(self):
        return len(self.mentions)

    def __len__(self):
        return len(self.mentions)

    def __repr__(self):
        return 'Cluster({})'.format(self.mentions)
