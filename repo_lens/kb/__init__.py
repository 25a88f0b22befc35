"""
Knowledge base package for repo_lens.

Pipeline: PathExplorer crawls the repository through a content gateway,
the extractor and EntryBuilder turn file text into KnowledgeEntry objects,
the RetrievalEngine ranks them for a query, and the ScanCache keeps one scan
per repository fingerprint between runs.
"""

__version__ = "0.1.0"
