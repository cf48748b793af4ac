"""
Contains methods for persisting :class:`~cheep_odm.persistence.document.Document` records to and from MongoDB.
Documents are registered against a collection with the :func:`~cheep_odm.persistence.document.collection` decorator,
then created, read, updated, deleted, listed, and searched by field equality through an
:class:`~cheep_odm.persistence.odm.Odm`. The database handle can come from the shared, lazily created client in
:mod:`cheep_odm.persistence.connection`.
"""
