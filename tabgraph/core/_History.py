import inspect
import json
import time
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from functools import wraps

import numpy as np
import polars as pl


@dataclass(frozen=True)
class ActionLogEntry:
    """One user-visible mutation of the graph.

    Attributes
    --
    version : int
        Sequence number; strictly increasing, may skip superseded values.
    function_used : str
        Name of the public mutator.
    time_modified : str
        UTC ISO-8601 timestamp of the call start.
    duration : float
        Wall time of the call in seconds.
    nodes, edges : int
        Graph size after the mutation.
    details : dict
        JSON-safe snapshot of the call arguments.

    """

    version: int
    function_used: str
    time_modified: str
    duration: float
    nodes: int
    edges: int
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class History:
    # History and Timeline

    def _utcnow_iso(self) -> str:
        return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")

    def _start_clock(self):
        return self._utcnow_iso(), time.perf_counter()

    def _jsonify(self, x):
        # Make args/return JSON-safe & compact.

        if x is None or isinstance(x, (bool, int, float, str)):
            return x
        if isinstance(x, (set, frozenset)):
            return sorted(self._jsonify(v) for v in x)
        if isinstance(x, (list, tuple)):
            return [self._jsonify(v) for v in x]
        if isinstance(x, dict):
            return {str(k): self._jsonify(v) for k, v in x.items()}
        if isinstance(x, (np.generic,)):
            return x.item()
        # dataframes and other heavy objects -> just a tag
        return f"<<{type(x).__name__}>>"

    def _log_event(self, op: str, fields=None, started=None):
        if not self._history_enabled:
            return
        ts, t0 = started if started is not None else self._start_clock()
        self._version += 1
        evt = ActionLogEntry(
            version=self._version,
            function_used=op,
            time_modified=ts,
            duration=max(0.0, time.perf_counter() - t0),
            nodes=self.number_of_vertices(),
            edges=self.number_of_edges(),
            details={str(k): self._jsonify(v) for k, v in (fields or {}).items()},
        )
        self._history.append(evt)

    def _replace_last_event(self, op: str, fields=None, started=None):
        """Supersede the most recent entry with ``op``.

        Used by composite mutators whose inner steps already logged an entry
        for the same user action, so the log keeps one entry per action.
        """
        if not self._history_enabled:
            return
        if self._history:
            self._history.pop()
        self._log_event(op, fields, started=started)

    def _log_mutation(self, name=None):
        def deco(fn):
            op = name or fn.__name__
            sig = inspect.signature(fn)

            @wraps(fn)
            def wrapper(*args, **kwargs):
                bound = sig.bind(*args, **kwargs)
                bound.apply_defaults()
                started = self._start_clock()
                result = fn(*args, **kwargs)
                payload = {}
                for k, v in bound.arguments.items():
                    if k == "self":
                        continue
                    if sig.parameters[k].kind is inspect.Parameter.VAR_KEYWORD:
                        payload.update(v)
                    else:
                        payload[k] = v
                if result is not self:
                    payload["result"] = result
                self._log_event(op, payload, started=started)
                return result

            return wrapper

        return deco

    def _install_history_hooks(self):
        # Mutating methods to wrap. Composite mutators that log through
        # _replace_last_event must not be listed here.
        to_wrap = [
            "add_vertex",
            "add_vertices",
            "add_edge",
            "remove_vertex",
            "remove_edge",
            "set_vertex_attrs",
            "set_edge_attrs",
        ]
        for name in to_wrap:
            if hasattr(self, name):
                fn = getattr(self, name)
                # Avoid double-wrapping
                if getattr(fn, "__wrapped__", None) is None:
                    setattr(self, name, self._log_mutation(name)(fn))

    def history(self, as_df: bool = False):
        """Return the append-only action log.

        Parameters
        --
        as_df : bool, default False
            If True, return a Polars DF [DataFrame]; otherwise a list of ``ActionLogEntry``.

        Notes
        -
        Ordering is guaranteed by 'version'. The ``details`` field is kept as a
        JSON string in the DataFrame form.

        """
        if as_df:
            return _history_frame(self._history)
        return list(self._history)

    def last_action(self):
        """Most recent ``ActionLogEntry`` or None."""
        return self._history[-1] if self._history else None

    def export_history(self, path: str):
        """Write the action log to disk.

        Parameters
        --
        path : str
            Output path. Supported extensions: '.parquet', '.ndjson' (a.k.a. '.jsonl'),
            '.json', '.csv'. Unknown extensions default to Parquet by appending '.parquet'.

        Returns
        ---
        int
            Number of events written. Returns 0 if the history is empty.

        """
        if not self._history:
            return 0
        path = str(path)
        p = path.lower()
        if p.endswith(".ndjson") or p.endswith(".jsonl"):
            with open(path, "w", encoding="utf-8") as f:
                for evt in self._history:
                    f.write(json.dumps(evt.to_dict(), ensure_ascii=False) + "\n")
            return len(self._history)
        if p.endswith(".json"):
            with open(path, "w", encoding="utf-8") as f:
                json.dump([evt.to_dict() for evt in self._history], f, ensure_ascii=False)
            return len(self._history)
        df = _history_frame(self._history)
        if p.endswith(".csv"):
            df.write_csv(path)
            return len(df)
        if not p.endswith(".parquet"):
            path = path + ".parquet"
        df.write_parquet(path)
        return len(df)

    def enable_history(self, flag: bool = True):
        """Enable or disable action logging."""
        self._history_enabled = bool(flag)

    def clear_history(self):
        """Clear the in-memory action log. The version counter keeps running."""
        self._history.clear()

    def mark(self, label: str):
        """Insert a manual marker (``function_used='mark'``) into the action log."""
        self._log_event("mark", {"label": label})


def _history_frame(entries) -> pl.DataFrame:
    schema = {
        "version": pl.Int64,
        "function_used": pl.Utf8,
        "time_modified": pl.Utf8,
        "duration": pl.Float64,
        "nodes": pl.Int64,
        "edges": pl.Int64,
        "details": pl.Utf8,
    }
    rows = []
    for evt in entries:
        row = evt.to_dict()
        row["details"] = json.dumps(row["details"], ensure_ascii=False)
        rows.append(row)
    return pl.DataFrame(rows, schema=schema)
