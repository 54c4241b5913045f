"""
Interfaces of the host analytics engine consumed by the pipeline.

Analytics models carry the settings a configuration is made from. The
analyser produces the labelled dataset (sample id -> indicator values
and target) and names the table its samples originate from. The predictor
trains the classifier. None of them is implemented here.
"""

from typing import Any, List, Optional, Protocol, Sequence

from lala.dataset import Dataset


class AnalyticsModel(Protocol):
    """Settings of a host analytics model a configuration is taken from."""
    id: int
    name: Optional[str]
    target: str
    predictions_processor: Optional[str]
    analysis_interval: Optional[str]
    indicators: Sequence[str]
    context_ids: Optional[Sequence[int]]


class Analyser(Protocol):
    #: Table the samples come from, e.g. 'user_enrolments'
    samples_origin: str

    def processes_user_data(self) -> bool:
        ...

    def collect_dataset(self, contexts: Optional[Sequence[Any]] = None) -> Dataset:
        ...


class TrainedModel(Protocol):
    def predict(self, x: List[List[Any]]) -> List[Any]:
        ...


class Predictor(Protocol):
    def train(self, x: List[List[Any]], y: List[Any]) -> TrainedModel:
        ...


class UploadedDataset:
    """Analyser stand-in that returns a dataset provided by the user."""

    def __init__(self, dataset: Dataset, samples_origin: str, processes_user_data: bool = True):
        self.dataset = dataset
        self.samples_origin = samples_origin
        self._processes_user_data = processes_user_data

    def processes_user_data(self) -> bool:
        return self._processes_user_data

    def collect_dataset(self, contexts: Optional[Sequence[Any]] = None) -> Dataset:
        return self.dataset
