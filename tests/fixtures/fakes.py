"""
Stand-ins for the host analytics engine and for schema access.
"""

from collections import Counter


ANALYSIS_INTERVAL = 'upcoming_week'
HEADER = ['indicator_activity', 'indicator_forum', 'target']


def make_dataset(entity_ids, intervals=(1, 2), key=ANALYSIS_INTERVAL):
    """One row per entity and interval: [activity, forum, target]."""
    samples = {'0': list(HEADER)}
    for entity_id in entity_ids:
        for interval in intervals:
            samples[f"{entity_id}-{interval}"] = [
                round(entity_id * 0.01, 2),
                interval % 2,
                int(entity_id % 2 == 0),
            ]
    return {key: samples}


class FakeAnalyser:
    """Returns a prepared dataset for any contexts."""

    def __init__(self, dataset, samples_origin='user_enrolments', user_data=True):
        self.dataset = dataset
        self.samples_origin = samples_origin
        self.user_data = user_data
        self.contexts_seen = []

    def processes_user_data(self):
        return self.user_data

    def collect_dataset(self, contexts=None):
        self.contexts_seen.append(contexts)
        return self.dataset


class MajorityModel:
    """Predicts the most frequent training target for every sample."""

    def __init__(self, label):
        self.label = label

    def predict(self, x):
        return [self.label for _ in x]


class MajorityPredictor:
    def __init__(self):
        self.trained_on = None

    def train(self, x, y):
        self.trained_on = (x, y)
        label, _ = Counter(y).most_common(1)[0]
        return MajorityModel(label)


class DictSchema:
    """
    In-memory schema access: {table: [row dict, ...]}.

    Column order is the key order of each table's first row.
    """

    def __init__(self, tables):
        self.tables = tables
        self.fetches = []

    def list_tables(self):
        return set(self.tables)

    def list_columns(self, table):
        rows = self.tables[table]
        if not rows:
            return []
        return [{'name': name} for name in rows[0]]

    def fetch_rows_by_ids(self, table, id_column, ids, selected_columns=None):
        self.fetches.append((table, tuple(ids)))
        wanted = set(ids)
        rows = [row for row in self.tables[table] if row[id_column] in wanted]
        if selected_columns:
            rows = [{name: row[name] for name in selected_columns} for row in rows]
        return [dict(row) for row in rows]


class FakeAnalyticsModel:
    """Host analytics model settings."""

    def __init__(self, id, name=None, target='course_dropout', predictions_processor=None,
                 analysis_interval=ANALYSIS_INTERVAL, indicators=('indicator_activity', 'indicator_forum'),
                 context_ids=None, is_static=False):
        self.id = id
        self.name = name
        self.target = target
        self.predictions_processor = predictions_processor
        self.analysis_interval = analysis_interval
        self.indicators = list(indicators)
        self.context_ids = context_ids
        self.is_static = is_static
