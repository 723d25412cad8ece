"""MapReduce applications."""