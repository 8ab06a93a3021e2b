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


import json
import os


class ClustererDoc:
    """Everything the clusterer needs to know about one document.

    Mention detection and pairwise scoring happen upstream; a document only
    carries mention ids and the tables produced by the pairwise models.

    Attributes:
        id: document id, folded into every cache key
        mentions: mention ids in document order
        classification_scores: dict (m1, m2) -> score of the classification model
        ranking_scores: dict (m1, m2) -> score of the ranking model
        anaphoricity_scores: dict mention -> anaphoricity score
        gold_clusters: list of lists of mention ids (training only)
        mention_types: dict mention -> type label, e.g. 'PRONOMINAL'
        mention_indices: dict mention -> position in document
        mention_to_gold: dict mention -> gold cluster (tuple)
    """

    def __init__(self, id, mentions, classification_scores, ranking_scores,
                 anaphoricity_scores=None, gold_clusters=None, mention_types=None,
                 mention_indices=None):
        self.id = id
        self.mentions = list(mentions)
        self.classification_scores = dict(classification_scores)
        self.ranking_scores = dict(ranking_scores)
        self.anaphoricity_scores = dict(anaphoricity_scores or {})
        self.gold_clusters = [tuple(c) for c in (gold_clusters or [])]
        self.mention_types = dict(mention_types or {})
        if mention_indices is None:
            mention_indices = {m: i for i, m in enumerate(self.mentions)}
        self.mention_indices = dict(mention_indices)

        self.mention_to_gold = dict()
        for cluster in self.gold_clusters:
            for m in cluster:
                self.mention_to_gold[m] = cluster

    def __repr__(self):
        return 'ClustererDoc(id={}, mentions={})'.format(self.id, len(self.mentions))


def _read_pair_table(table):
    """'m1 m2' -> score json table to dict (m1, m2) -> score"""
    scores = dict()
    for key, score in table.items():
        m1, m2 = key.split()
        scores[(int(m1), int(m2))] = float(score)
    return scores


def doc_from_json(data):
    """Builds ClustererDoc from its json representation; For example:
    {
        "id": 3,
        "mentions": [0, 1, 2],
        "classification": {"0 1": 0.9, "1 2": 0.1},
        "ranking": {"0 1": 0.8, "1 2": 0.05},
        "anaphoricity": {"1": 0.7},
        "gold": [[0, 1], [2]],
        "types": {"0": "PROPER", "1": "PRONOMINAL", "2": "NOMINAL"}
    }
    """
    return ClustererDoc(
        id=int(data['id']),
        mentions=[int(m) for m in data['mentions']],
        classification_scores=_read_pair_table(data['classification']),
        ranking_scores=_read_pair_table(data.get('ranking', data['classification'])),
        anaphoricity_scores={int(m): float(s) for m, s in data.get('anaphoricity', {}).items()},
        gold_clusters=[[int(m) for m in c] for c in data.get('gold', [])],
        mention_types={int(m): t for m, t in data.get('types', {}).items()},
    )


def load_documents(path, max_docs=-1):
    """Loads documents from a json-lines file or a folder of them.

    Args:
        path: file or directory with *.jsonl files
        max_docs: stop after this many documents, -1 for all

    Returns:
        list of ClustererDoc
    """
    if os.path.isdir(path):
        files = [os.path.join(path, f) for f in sorted(os.listdir(path)) if f.endswith('.jsonl')]
    else:
        files = [path]

    docs = []
    for file in files:
        with open(file, 'r', encoding='utf8') as f:
            for line in f:
                line = line.strip()
                if len(line) == 0:
                    continue
                if 0 <= max_docs <= len(docs):
                    return docs
                docs.append(doc_from_json(json.loads(line)))
    return docs
