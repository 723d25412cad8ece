"""MapReduce coordinator, worker and command-line runners."""