#!/usr/bin/env python3

# Copyright (c) Facebook, Inc. and its affiliates.

from abc import ABC, abstractmethod

from errors import NotFittedError


class BaseModel(ABC):
    def __init__(self, name: str, **kwargs):
        self.name = name
        self.is_fitted = False

    def __repr__(self):
        return f"{self.name}(fitted = {self.is_fitted})"

    def _check_is_fitted(self):
        if not self.is_fitted:
            raise NotFittedError(f"{self.name} has to be fitted before predicting")

    @abstractmethod
    def fit(self, **kwargs):
        pass

    @abstractmethod
    def predict(self, **kwargs):
        pass
