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


import logging
import os
import pickle
from collections import defaultdict

import numpy as np

from ..errors import CheckpointError

logger = logging.getLogger(__name__)


class Loss:
    """Loss function given as its prediction link and derivative w.r.t. the product w * f"""

    def __init__(self, name, predict, derivative):
        self.name = name
        self.predict = predict
        self.derivative = derivative


def log():
    """logistic loss, label in {0, 1}"""
    def predict(product):
        return 1.0 / (1.0 + np.exp(-product))

    def derivative(label, product):
        return predict(product) - label

    return Loss('log', predict, derivative)


def risk():
    """expected risk: minimizes the sigmoid of the product, label is ignored"""
    def predict(product):
        return 1.0 / (1.0 + np.exp(-product))

    def derivative(label, product):
        return -1.0 / (2.0 + np.exp(product) + np.exp(-product))

    return Loss('risk', predict, derivative)


def max_margin(h):
    """hinge loss with margin h, label in {-1, 1}"""
    def predict(product):
        return product

    def derivative(label, product):
        return -label if label * product < h else 0.0

    return Loss('max_margin', predict, derivative)


class ConstantLearningRate:
    def __init__(self, eta):
        self.eta = eta

    def update(self, feature, gradient):
        pass

    def get_learning_rate(self, feature):
        return self.eta


class AdaGrad:
    """per-feature learning rate eta / sqrt(sum of squared gradients), optionally decayed"""

    def __init__(self, eta, decay=1.0):
        self.eta = eta
        self.decay = decay
        self.sum_squared_gradients = defaultdict(float)

    def update(self, feature, gradient):
        previous = self.sum_squared_gradients[feature] * self.decay
        self.sum_squared_gradients[feature] = previous + gradient * gradient

    def get_learning_rate(self, feature):
        return self.eta / np.sqrt(self.sum_squared_gradients[feature])


def constant(eta):
    return ConstantLearningRate(eta)


def ada_grad(eta, decay=1.0):
    return AdaGrad(eta, decay)


class SimpleLinearClassifier:
    """Online linear model over sparse string-keyed features.

    Any object exposing weight_feature_product(features) and
    learn(features, label, weight) can replace it in the clusterer.
    """

    def __init__(self, loss=None, learning_rate_schedule=None, regularization_strength=0.0,
                 model_file=None):
        self.default_loss = loss if loss is not None else log()
        self.learning_rate_schedule = learning_rate_schedule if learning_rate_schedule is not None \
            else constant(0.05)
        self.regularization_strength = regularization_strength
        self.examples_seen = 0
        self.access_times = defaultdict(int)
        self.weights = defaultdict(float)
        if model_file is not None:
            self.read_weights(model_file)

    def score(self, features):
        return self.weight_feature_product(features)

    def weight_feature_product(self, features):
        product = 0.0
        for name, value in features.items():
            product += value * self.weights.get(name, 0.0)
        return product

    def predict(self, features):
        return self.default_loss.predict(self.weight_feature_product(features))

    def learn(self, features, label, weight, loss=None):
        """One SGD step on a single example.

        Args:
            features: dict feature name -> value
            label: gold label, meaning depends on the loss
            weight: importance of the example, scales the step
            loss: overrides the default loss
        """
        loss = loss if loss is not None else self.default_loss
        self.examples_seen += 1
        dloss = loss.derivative(label, self.weight_feature_product(features))
        for name, value in features.items():
            dfeature = weight * (-dloss * value)
            if dfeature == 0:
                continue
            self.learning_rate_schedule.update(name, dfeature)
            lr = self.learning_rate_schedule.get_learning_rate(name)
            w = self.weights[name]
            # lazy regularization for the steps this feature was not seen
            dreg = weight * self.regularization_strength * (self.examples_seen - self.access_times[name])
            after_reg = w - np.sign(w) * dreg * lr
            if np.sign(after_reg) != np.sign(w):
                after_reg = 0.0
            self.weights[name] = float(after_reg + dfeature * lr)
            self.access_times[name] = self.examples_seen

    def set_weight(self, name, value):
        self.weights[name] = float(value)

    def get_weight(self, name):
        return self.weights.get(name, 0.0)

    def write_weights(self, path):
        """pickles the weight vector; file is replaced only after a complete write"""
        tmp_path = path + '.tmp'
        try:
            with open(tmp_path, 'wb') as f:
                pickle.dump(dict(self.weights), f)
            os.replace(tmp_path, path)
        except (OSError, pickle.PicklingError) as e:
            raise CheckpointError('writing model', path, e) from e

    def read_weights(self, path):
        try:
            with open(path, 'rb') as f:
                weights = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError) as e:
            raise CheckpointError('reading model', path, e) from e
        self.weights = defaultdict(float, weights)

    def print_weight_vector(self, writer=None):
        """Writes 'name value' lines sorted by decreasing weight; logs them when writer is None"""
        lines = ['{} {}'.format(name, value)
                 for name, value in sorted(self.weights.items(), key=lambda x: (-x[1], x[0]))]
        if writer is None:
            for line in lines:
                logger.info(line)
        else:
            for line in lines:
                writer.write(line + '\n')
