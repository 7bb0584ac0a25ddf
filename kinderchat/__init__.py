"""KinderDag conversational activity recommendation backend."""
