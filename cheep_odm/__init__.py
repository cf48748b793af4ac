"""
A minimal object-document mapper for MongoDB. Records are `Pydantic <https://docs.pydantic.dev/>`_ models, which are
converted to and from MongoDB documents by way of JSON, with MongoDB ObjectIds and datetimes carried through custom
codecs.
"""
