"""
Common data structures used across the package. The :class:`~cheep_odm.types.data.DataModel` pydantic base class
allows driver types such as :class:`bson.ObjectId` as fields, and encodes models with per-type custom encoders.
"""
