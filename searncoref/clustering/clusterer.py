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
import logging
import os
import time

import numpy as np
from tqdm import tqdm

from ..errors import CheckpointError, InferenceCancelled
from ..models.linear import SimpleLinearClassifier, constant, risk
from ..utils.coreference_utils import B3Evaluator, CombinedEvaluator
from . import config
from .actions import best_action, learn_from_actions
from .state import State, TrainingContext

logger = logging.getLogger(__name__)

# warm start for the weight vector
INITIAL_WEIGHTS = {
    'bias': -0.3,
    'anaphorSeen': -1,
    'max-ranking': 1,
    'bias-single': -0.3,
    'anaphorSeen-single': -1,
    'max-ranking-single': 1,
}

PROGRESS_FIELDS = ['iteration', 'score', 'elapsed', 'cost_hit_rate', 'score_hit_rate', 'features_hit_rate']


def shuffle(items, random):
    """in-place shuffle driven by a numpy RandomState"""
    items[:] = [items[i] for i in random.permutation(len(items))]


def write_atomic(path, write, mode='w', phase='writing'):
    """Calls write(file) on a temporary file and moves it to path when it is complete"""
    tmp_path = path + '.tmp'
    try:
        if 'b' in mode:
            f = open(tmp_path, mode)
        else:
            f = open(tmp_path, mode, encoding='utf8')
        with f:
            write(f)
        os.replace(tmp_path, path)
    except Exception as e:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise CheckpointError(phase, path, e) from e


class Clusterer:
    """Builds coreference clusters incrementally, deciding for each candidate mention pair
    whether to merge the clusters containing them.

    The policy is a linear model trained with a variant of SEARN imitation learning.
    """

    def __init__(self, opt=None, model_path=None):
        """
        Args:
            opt: options from config.get_opt(), defaults when None
            model_path: pickled weight vector written by a previous training run
        """
        if opt is None:
            opt = config.get_opt()
        else:
            config.validate_opt(opt)
        self.opt = opt
        self.random = np.random.RandomState(opt['random_seed'])
        self.classifier = SimpleLinearClassifier(loss=risk(),
                                                 learning_rate_schedule=constant(opt['learning_rate']),
                                                 regularization_strength=0.0,
                                                 model_file=model_path)

    def _progress(self, items, desc):
        return tqdm(items, desc=desc, disable=not self.opt['verbose'])

    def get_cluster_merges(self, doc, cancel_event=None):
        """Greedy clustering of one document.

        Args:
            doc: ClustererDoc
            cancel_event: threading.Event checked before every decision

        Returns:
            list of mention pairs whose clusters were merged, in decision order

        Raises:
            InferenceCancelled: cancel_event was set; no merges are returned
        """
        context = TrainingContext(self.opt)
        context.is_training = False
        merges = []
        state = State(doc, context)
        while not state.is_complete():
            if cancel_event is not None and cancel_event.is_set():
                raise InferenceCancelled(doc.id)
            current_pair = state.current_pair()
            if state.do_best_action(self.classifier):
                merges.append(current_pair)
        return merges

    def evaluate(self, docs):
        """B3, MUC and combined scores of the current policy on docs with gold clusters"""
        context = TrainingContext(self.opt)
        context.is_training = False
        evaluator = CombinedEvaluator(self.opt['muc_weight'])
        for doc in self._progress(docs, 'evaluating'):
            state = State(doc, context)
            while not state.is_complete():
                state.do_best_action(self.classifier)
            state.update_evaluator(evaluator)
        return evaluator.report()

    def do_training(self, model_name, train_docs, eval_docs=None):
        """Trains the policy, writing checkpoints to models_path/model_name.

        Every iteration the policy is trained on a replay buffer of examples,
        evaluated, and then rolled out on each training document to generate new
        examples. Rollouts follow the expert with probability
        expert_decay ** (iteration + 1) and the current policy otherwise.

        Args:
            model_name: name of the folder for checkpoints
            train_docs: list of ClustererDoc with gold clusters
            eval_docs: documents to select the best model on, train_docs when None

        Returns:
            list of progress records, one per evaluation
        """
        opt = self.opt
        context = TrainingContext(opt)
        for name, value in INITIAL_WEIGHTS.items():
            self.classifier.set_weight(name, value)

        output_path = os.path.join(opt['models_path'], model_name)
        try:
            os.makedirs(output_path, exist_ok=True)
        except OSError as e:
            raise CheckpointError('creating model folder', output_path, e) from e
        write_atomic(os.path.join(output_path, 'config'),
                     lambda f: json.dump(config.describe(opt), f, indent=2, sort_keys=True),
                     phase='writing config')

        logger.info('Loading training data')
        train_docs = list(train_docs)
        if opt['max_docs'] >= 0:
            train_docs = train_docs[:opt['max_docs']]
        training = eval_docs is None
        if training:
            eval_docs, eval_context = train_docs, context
        else:
            # held-out ids may repeat training ids, so they get their own hashes and features
            eval_docs, eval_context = list(eval_docs), TrainingContext(opt)

        progress_path = os.path.join(output_path, 'progress')
        try:
            progress_writer = open(progress_path, 'w', encoding='utf8')
        except OSError as e:
            raise CheckpointError('opening progress log', progress_path, e) from e

        best_score = 0.0
        history = []
        examples = []
        with progress_writer:
            for iteration in range(opt['retrain_iterations']):
                logger.info('ITERATION %d', iteration)
                self.classifier.print_weight_vector()
                logger.info('')
                self.write_model(output_path, 'model', 'weights')

                start = time.time()
                shuffle(train_docs, self.random)
                examples = examples[max(0, len(examples) - opt['buffer_size_multiplier'] * len(train_docs)):]
                self.train_policy(examples)

                if iteration % opt['eval_frequency'] == 0:
                    score = self.evaluate_policy(eval_docs, eval_context, training)
                    if score > best_score:
                        best_score = score
                        self.write_model(output_path, 'best_model.ser', 'best_weights')
                    if iteration % opt['checkpoint_frequency'] == 0:
                        self.write_model(output_path, 'iter_{}_model.ser'.format(iteration),
                                         'iter_{}_weights'.format(iteration))
                    self.write_model(output_path, 'last_model.ser', 'last_weights')

                    elapsed = time.time() - start
                    cost_hit_rate, score_hit_rate, features_hit_rate = context.hit_rates()
                    logger.info(model_name)
                    logger.info('Best train: %.4f', best_score)
                    logger.info('Time elapsed: %.2f', elapsed)
                    logger.info('Cost hit rate: %.4f', cost_hit_rate)
                    logger.info('Score hit rate: %.4f', score_hit_rate)
                    logger.info('Features hit rate: %.4f', features_hit_rate)
                    logger.info('')

                    record = dict(zip(PROGRESS_FIELDS, [iteration, score, elapsed, cost_hit_rate,
                                                        score_hit_rate, features_hit_rate]))
                    history.append(record)
                    try:
                        progress_writer.write(' '.join(str(record[f]) for f in PROGRESS_FIELDS) + '\n')
                        progress_writer.flush()
                    except OSError as e:
                        raise CheckpointError('writing progress log', progress_path, e) from e

                beta = opt['expert_decay'] ** (iteration + 1)
                for doc in self._progress(train_docs, 'rollouts'):
                    examples.append(self.run_policy(doc, beta, context))

        context.features_cache.clear()
        eval_context.features_cache.clear()
        return history

    def write_model(self, output_path, model_name, weights_name):
        self.classifier.write_weights(os.path.join(output_path, model_name))
        write_atomic(os.path.join(output_path, weights_name), self.classifier.print_weight_vector,
                     phase='writing weights')

    def train_policy(self, examples):
        """num_epochs passes of SGD over the shuffled (merge, no merge) action pairs of all documents"""
        flattened_examples = [e for doc_examples in examples for e in doc_examples]
        for epoch in range(self.opt['num_epochs']):
            shuffle(flattened_examples, self.random)
            for e in flattened_examples:
                learn_from_actions(self.classifier, e)
        if flattened_examples:
            total_cost = sum(best_action(self.classifier, e).cost for e in flattened_examples)
            logger.info('Training cost: %.4f', 100 * total_cost / len(flattened_examples))

    def evaluate_policy(self, docs, context, training=True):
        """B3 F-1 of greedy rollouts of the current policy"""
        evaluator = B3Evaluator()
        with context.evaluation():
            for doc in self._progress(docs, 'evaluating'):
                state = State(doc, context)
                while not state.is_complete():
                    state.do_best_action(self.classifier)
                state.update_evaluator(evaluator)
        score = evaluator.get_f1()
        logger.info('B3 F1 score on %s: %.4f', 'train' if training else 'validate', score)
        return score

    def run_policy(self, doc, beta, context):
        """Rolls out a mixture of expert and current policy on doc, collecting action pairs at every decision"""
        examples = []
        state = State(doc, context)
        while not state.is_complete():
            actions = state.get_actions(self.classifier)
            examples.append(actions)
            use_expert = self.random.random_sample() < beta
            if use_expert:
                action1_score, action2_score = -actions[0].cost, -actions[1].cost
            else:
                action1_score = self.classifier.weight_feature_product(actions[0].features)
                action2_score = self.classifier.weight_feature_product(actions[1].features)
            state.do_action(action1_score >= action2_score)
        return examples
