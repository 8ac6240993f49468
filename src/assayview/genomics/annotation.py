"""
Gene-level row annotation from mygene.info.

Fetches genomic ranges (chromosome, start, end, strand), symbol, and gene type
for gene identifiers, in a shape that drops straight into an AssayView row
annotation. Stands in for querying a local gene-model database when all that
is needed is coordinates per gene.

Examples:
    >>> client = GeneAnnotationClient(assembly="hg38")
    >>> ranges = client.gene_ranges(['TP53', 'BRCA1'], scopes='symbol')
    >>> ranges.loc['TP53', ['seqname', 'start', 'end']]
    >>>
    >>> annotated = client.annotate(expression_view, scopes='ensembl.gene')
    >>> annotated.subset(rows=overlapping(GenomicInterval("chr17", 7600000, 7700000)))
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging
import pandas as pd

from assayview.core.view import AssayView

__all__ = ['GeneAnnotationClient', 'RANGE_COLUMNS']

logger = logging.getLogger(__name__)

RANGE_COLUMNS = ["seqname", "start", "end", "strand", "symbol", "biotype", "build"]

_POSITION_FIELDS = {
    "hg38": "genomic_pos",
    "hg19": "genomic_pos_hg19",
}


class GeneAnnotationClient:
    """
    Batch gene-range lookup over mygene.info.

    No authentication required. Queries run in batches of ``batch_size`` ids.

    Args:
        species: mygene species name or taxonomy id
        assembly: "hg38" or "hg19" (human builds carried by mygene.info)
        batch_size: Identifiers per querymany call
    """

    def __init__(self, species: str = "human", assembly: str = "hg38", batch_size: int = 1000):
        if assembly not in _POSITION_FIELDS:
            raise ValueError(
                f"Unsupported assembly '{assembly}'. Choose from: {', '.join(_POSITION_FIELDS)}"
            )
        import mygene
        self.mg = mygene.MyGeneInfo()
        self.species = species
        self.assembly = assembly
        self.batch_size = batch_size

    def gene_ranges(self, ids: List[str], scopes: str = "symbol") -> pd.DataFrame:
        """
        Genomic ranges for gene identifiers.

        Args:
            ids: Gene identifiers (symbols, Ensembl ids, Entrez ids, ...)
            scopes: mygene field(s) the ids belong to, e.g. "symbol",
                "ensembl.gene", "entrezgene"

        Returns:
            DataFrame indexed by query id with RANGE_COLUMNS. Ids with no hit
            or no position on a primary chromosome are absent.
        """
        ids = [str(i) for i in ids]
        position_field = _POSITION_FIELDS[self.assembly]
        batches = [ids[i:i + self.batch_size] for i in range(0, len(ids), self.batch_size)]

        records: List[Dict[str, Any]] = []
        for n, batch in enumerate(batches):
            logger.debug(f"Querying batch {n + 1}/{len(batches)} ({len(batch)} IDs)")
            result = self.mg.querymany(
                batch,
                scopes=scopes,
                fields=f"symbol,type_of_gene,{position_field}",
                species=self.species,
                returnall=True,
            )
            for item in result["out"]:
                record = self._to_record(item, position_field)
                if record is not None:
                    records.append(record)

        if not records:
            logger.warning(f"No gene ranges found for {len(ids)} identifiers")
            return pd.DataFrame(columns=RANGE_COLUMNS, index=pd.Index([], name="query"))

        ranges = (
            pd.DataFrame.from_records(records)
            .drop_duplicates(subset="query", keep="first")
            .set_index("query")
        )
        logger.info(
            f"Gene ranges: {len(ranges)}/{len(ids)} identifiers located on {self.assembly}"
        )
        return ranges[RANGE_COLUMNS]

    def annotate(self, view: AssayView, scopes: str = "symbol") -> AssayView:
        """
        Return a view whose row annotation gains gene ranges.

        Existing columns with the same names are replaced; features without a
        hit get missing values. Row order and count are unchanged.
        """
        ranges = self.gene_ranges(list(view.row_ids), scopes=scopes)
        ranges.index = ranges.index.astype(str)

        base = view.row_annotation.drop(
            columns=[c for c in RANGE_COLUMNS if c in view.row_annotation.columns]
        )
        annotated = base.join(ranges.reindex(view.row_ids.astype(str)).set_axis(base.index))
        return view.with_row_annotation(annotated)

    def _to_record(self, item: Dict[str, Any], position_field: str) -> Optional[Dict[str, Any]]:
        if item.get("notfound"):
            return None

        position = item.get(position_field)
        if isinstance(position, list):
            # Prefer primary assembly over alt/patch contigs (e.g. 'HSCHR6_MHC_COX')
            primary = [p for p in position if _is_primary(p.get("chr"))]
            position = primary[0] if primary else None
        if not position or not _is_primary(position.get("chr")):
            return None

        return {
            "query": item.get("query"),
            "seqname": f"chr{position['chr']}",
            "start": int(position["start"]),
            "end": int(position["end"]),
            "strand": {1: "+", -1: "-"}.get(position.get("strand"), "*"),
            "symbol": item.get("symbol"),
            "biotype": item.get("type_of_gene"),
            "build": self.assembly,
        }


def _is_primary(chrom: Any) -> bool:
    return chrom is not None and "_" not in str(chrom) and len(str(chrom)) <= 2
