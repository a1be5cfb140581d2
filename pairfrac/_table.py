"""
_table.py
=========
Tab-delimited sample table input and distance-matrix output.

Input layout (header row, then one row per taxon)::

    #OTU    SampleA  SampleB  SampleC
    T1      10       0        5
    T2      0        25       0

The first header cell is a placeholder and is ignored.  Values are parsed
as floats and binarised immediately: anything > 0 becomes 1.0.

Output layout::

    Sample   SampleA   SampleB   SampleC
    SampleA  0.000000  0.333333  1.000000
    ...
"""

import csv
import logging
import os
import tempfile
from typing import Dict, List

import numpy as np

from pairfrac._errors import DataInconsistencyError
from pairfrac._utils import binarize

logger = logging.getLogger(__name__)


class SampleTable:
    """
    A binarised taxa × samples presence matrix.

    Attributes
    ----------
    taxa_order   : list[str]              taxon names in file order
    sample_names : list[str]              sample names in file order
    presence     : float64 (n_taxa, n_samples), values in {0.0, 1.0}
    taxon_index  : dict[str, int]         taxon name → row in ``presence``
    """

    def __init__(self, taxa_order: List[str], sample_names: List[str], presence) -> None:
        presence = binarize(presence)
        if presence.ndim != 2:
            raise DataInconsistencyError(
                f"Presence matrix must be 2-D, got {presence.ndim} dimension(s)."
            )
        if presence.shape != (len(taxa_order), len(sample_names)):
            raise DataInconsistencyError(
                f"Presence matrix shape {presence.shape} does not match "
                f"{len(taxa_order)} taxa × {len(sample_names)} samples."
            )

        taxon_index: Dict[str, int] = {}
        for row, taxon in enumerate(taxa_order):
            if taxon in taxon_index:
                raise DataInconsistencyError(
                    f"Duplicate taxon '{taxon}' in rows {taxon_index[taxon]} and {row}."
                )
            taxon_index[taxon] = row

        self.taxa_order = list(taxa_order)
        self.sample_names = list(sample_names)
        self.presence = presence
        self.taxon_index = taxon_index

    @property
    def n_taxa(self) -> int:
        return len(self.taxa_order)

    @property
    def n_samples(self) -> int:
        return len(self.sample_names)

    def present_taxa(self, *samples: int) -> List[str]:
        """Taxa present in at least one of the given sample columns."""
        mask = self.presence[:, list(samples)].any(axis=1)
        return [self.taxa_order[row] for row in np.flatnonzero(mask)]

    @classmethod
    def from_file(cls, path) -> "SampleTable":
        """
        Read a tab-delimited sample table.

        Raises
        ------
        OSError
            If the file cannot be opened.
        DataInconsistencyError
            If the header is missing, a row has the wrong number of columns,
            a value is not numeric, or a taxon is listed twice.
        """
        taxa_order = []
        rows = []
        with open(path, newline="") as fh:
            reader = csv.reader(fh, delimiter="\t")
            header = None
            for record in reader:
                if not record or all(not cell.strip() for cell in record):
                    continue
                line = reader.line_num
                if header is None:
                    header = record
                    continue
                if len(record) != len(header):
                    raise DataInconsistencyError(
                        f"expected {len(header)} columns, found {len(record)}",
                        line=line,
                    )
                taxa_order.append(record[0])
                try:
                    rows.append([float(cell) for cell in record[1:]])
                except ValueError as err:
                    raise DataInconsistencyError(
                        f"non-numeric value for taxon '{record[0]}' ({err})",
                        line=line,
                    ) from None

        if header is None:
            raise DataInconsistencyError(f"{path}: no header row in table")

        sample_names = header[1:]
        presence = np.asarray(rows, dtype=np.float64).reshape(
            len(taxa_order), len(sample_names)
        )
        logger.info(
            "Read %d taxa × %d samples from %s", len(taxa_order), len(sample_names), path
        )
        return cls(taxa_order, sample_names, presence)


def write_distance_matrix(path, sample_names: List[str], matrix: np.ndarray) -> None:
    """
    Write *matrix* as a tab-delimited table with 6 decimal places.

    The data is written to a temporary file next to *path* and renamed into
    place, so *path* is either absent or complete.
    """
    n = len(sample_names)
    if matrix.shape != (n, n):
        raise DataInconsistencyError(
            f"Distance matrix shape {matrix.shape} does not match {n} samples."
        )

    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".pairfrac-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", newline="") as fh:
            fh.write("Sample")
            for name in sample_names:
                fh.write(f"\t{name}")
            fh.write("\n")
            for i in range(n):
                fh.write(sample_names[i])
                for j in range(n):
                    fh.write(f"\t{matrix[i, j]:.6f}")
                fh.write("\n")
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise

    logger.info("Wrote %d × %d distance matrix to %s", n, n, path)
