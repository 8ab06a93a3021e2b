"""
Copyright 2017 Neural Networks and Deep Learning lab, MIPT
Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at
    http://www.apache.org/licenses/LICENSE-2.0
Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""
"""
    searncoref.clustering

    Incremental clustering of mentions for coreference resolution.
    Mention detection and mention pair scoring are done beforehand: each document comes with
    a list of mentions and two tables of mention pair scores (classification and ranking models).
    Clusterer only decides which clusters to merge.

    Model architecture
        1. Candidate pairs
            All scored mention pairs are sorted by score and the long tail of low scoring pairs
            is cut off (min_pairs, min_pairwise_score, early_stop_threshold, early_stop_val).

        2. Clustering
            Every mention starts in its own cluster. Pairs are visited in order; for each pair
            whose mentions are in different clusters a linear policy decides whether to merge
            the two clusters. Policy features describe the pair of clusters: max, min and average
            pairwise scores between them, anaphoricity, position in the document.

    Details
        The policy is trained with a variant of SEARN imitation learning [1].
        At every decision both actions are tried and the rest of the document is clustered;
        the difference in combined B3/MUC F-1 of the two outcomes is the cost of the worse action.
        Action pairs are kept in a replay buffer and the policy is trained on them with SGD.
        New examples are generated each iteration by rolling out a mixture of the expert
        (lowest cost action) and the current policy.

        Clusters carry a hash that depends only on their mentions, which makes decisions, costs
        and features of identical decision points cacheable across rollouts.

        Training writes checkpoints and a progress log to models_path/model_name.

    References
        [1] Kevin Clark and Christopher D. Manning. Entity-Centric Coreference Resolution with Model Stacking. ACL 2015.
"""
