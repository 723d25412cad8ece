"""Models for the linearizability checker."""